"""Configuration templates rendered by wpstack."""
