__version__ = "0.4.2"
__description__ = "entity_routes: REST routes, mappings and search filters generated from SqlAlchemy models"
