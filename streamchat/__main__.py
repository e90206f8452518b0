from streamchat.cli import app

app()
