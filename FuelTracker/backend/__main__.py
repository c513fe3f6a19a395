import os

from . import create_app

if __name__ == '__main__':
    app = create_app()
    # Only bind to localhost; debug mode exposes the debugger
    app.run(host='127.0.0.1', port=int(os.environ.get('PORT', 5000)), debug=app.config.get('DEBUG', False))
