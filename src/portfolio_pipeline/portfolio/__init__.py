"""Portfolio aggregation: turns both sources' raw data into one portfolio."""
