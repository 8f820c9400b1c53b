"""
Interactive application core: model, messages, commands and the state machine.
"""
