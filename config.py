import os

from dotenv import load_dotenv

load_dotenv()

# Database
DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "grocery")

# Auth
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALG = "HS256"
TOKEN_TTL_DAYS = 7

# Media host
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")
PRODUCT_IMAGE_FOLDER = os.getenv("PRODUCT_IMAGE_FOLDER", "grocery/products")
UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(os.path.dirname(os.path.abspath(__file__)), "uploads"))

# Seeded admin account
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@grocery.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

PORT = int(os.getenv("PORT", 8000))
