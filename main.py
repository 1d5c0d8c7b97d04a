import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from wsgi import app  # Status API app

if __name__ == '__main__':
    app.run(debug=os.getenv("FLASK_DEBUG") == "1", host='0.0.0.0', port=int(os.getenv("PORT", "5000")))
