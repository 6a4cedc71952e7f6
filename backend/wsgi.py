from otc_desk import create_app

app = create_app()
