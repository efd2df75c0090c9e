import os
import mysql.connector
from mysql.connector import pooling
from dotenv import load_dotenv

load_dotenv()

class Config:
    SECRET_KEY = os.getenv('SECRET_KEY')
    MYSQL_HOST = os.getenv('MYSQL_HOST')
    MYSQL_USER = os.getenv('MYSQL_USER')
    MYSQL_PASSWORD = os.getenv('MYSQL_PASSWORD')
    MYSQL_DATABASE = os.getenv('MYSQL_DATABASE', 'fintrack_db')
    MYSQL_POOL_SIZE = int(os.getenv('MYSQL_POOL_SIZE', '5'))

    GEMINI_API_KEY = os.getenv('GEMINI_API_KEY')
    GEMINI_MODEL = os.getenv('GEMINI_MODEL', 'gemini-1.5-flash')

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Statements and screenshots for smart import
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024
    ALLOWED_IMPORT_EXT = {'csv', 'pdf', 'png', 'jpg', 'jpeg', 'webp'}

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    @staticmethod
    def database_uri():
        return "mysql+mysqlconnector://{}:{}@{}/{}".format(
            Config.MYSQL_USER, Config.MYSQL_PASSWORD or '', Config.MYSQL_HOST, Config.MYSQL_DATABASE
        )

    @staticmethod
    def init_db(app):
        app.db_pool = mysql.connector.pooling.MySQLConnectionPool(
            pool_name="fintrack_pool",
            pool_size=Config.MYSQL_POOL_SIZE,
            host=Config.MYSQL_HOST,
            user=Config.MYSQL_USER,
            password=Config.MYSQL_PASSWORD,
            database=Config.MYSQL_DATABASE
        )
