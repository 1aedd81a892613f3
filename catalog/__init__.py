"""catalog/ -- DCAT rendering of the dataset registry kept in sys.datasets."""
