"""Tutorial generation API: prompt building, response repair and normalization."""
