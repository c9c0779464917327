from dryclean import create_app

app = create_app()
