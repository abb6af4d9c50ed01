from pqbus.worker.main import run

run()
