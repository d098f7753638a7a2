#  Gallery Admin: console for managing gallery categories, templates and images

"""
Main entry point for the Flask application.
"""
from gallery_admin import create_app

app = create_app()

if __name__ == "__main__":
    app.run(
        host=app.config["HOST"],
        port=app.config["PORT"],
        debug=app.config["DEBUG"],
        threaded=True,
    )
