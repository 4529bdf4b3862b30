from .boroughs import BOROUGH_POPULATION, BOROUGHS, normalize_borough, population_frame

__all__ = [
    "BOROUGH_POPULATION",
    "BOROUGHS",
    "normalize_borough",
    "population_frame",
]
