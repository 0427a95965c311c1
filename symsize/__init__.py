"""Per-symbol size reporting for compiled firmware images."""
