from app.rhub import create_app

app = create_app()
