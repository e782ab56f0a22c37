"""Text extraction for scanned and photographed inspection reports."""
