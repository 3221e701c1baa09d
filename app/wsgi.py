from app.staffing import create_app

app = create_app()
