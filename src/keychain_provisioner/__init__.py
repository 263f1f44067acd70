"""
Keychain Provisioner - signing identity setup for macOS build nodes.

This package prepares a macOS keychain so that a later code signing step can
use a private key and certificate without interactive prompts, and puts the
host keychain configuration back afterwards.
"""

__version__ = "0.1.0"
