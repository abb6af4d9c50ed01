"""
Worker module.
Contains the consumer/publisher process.
"""
