"""
Model Fuzzer - Model-based, fault-injecting test engine for clustered systems
"""
__version__ = "0.1.0"
