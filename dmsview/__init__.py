"""Reading DMS models and DTEX textures, with CPU skeletal animation and skinning."""

__version__ = "0.1.0"
__all__ = ["dtex", "mathutil", "primitives", "model"]