from app.boardroom import create_app

app = create_app()
