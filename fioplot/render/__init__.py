"""Chart and workbook rendering."""
