from flask import Blueprint

main = Blueprint('main', __name__)

from . import customer_routes
from . import lead_routes
from . import payment_routes
from . import admin_routes
from . import user_routes
