"""monopub: publish the changed packages of a JavaScript workspace in dependency order."""

__version__ = "0.1.0"
