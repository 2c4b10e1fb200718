import atexit

from library_api import create_app
from library_api.db_setup import close_database

app = create_app()
atexit.register(close_database, app)

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=4000)
