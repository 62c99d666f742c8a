from .doctor_router import *
from .booking_router import *
from .clinic_router import *
from .patient_router import *
from .queue_router import *
