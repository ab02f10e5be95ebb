# Point d'entrée : uvicorn main:app --reload
from studyforge.main import create_app

app = create_app()
