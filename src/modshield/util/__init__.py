"""
Utility helpers for Modshield.

- **logger.py**: Colored console and rotating file logging shared by every
  component, with noisy library loggers silenced and a global exception hook.

- **discord_utils.py**: Stateless py-cord helpers: safe message deletion,
  ignore and bypass checks, and warning delivery with a direct-message fallback.
"""
