"""Service layer: scheduling, fetching, market data and the token directory"""
