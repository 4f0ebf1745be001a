"""
nixng - Nix rebuild workflow orchestration.

Wraps nix builds of NixOS, nix-darwin and Home-Manager configurations
with pre-flight validation, diffing and guarded activation.
"""

__version__ = "0.3.0"
