"""WPFortify command-line interface."""
