"""
Collaborative-filtering recommender engine + API.

- recommender/: core engine (data model, similarity, neighborhood, diff storage, recommenders)
- web/: FastAPI routes, schemas, services
- config.py: Settings đọc từ environment / .env
"""
