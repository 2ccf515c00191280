from app.squadron import create_app

app = create_app()
