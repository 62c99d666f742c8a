from .booking_state import *
from .serial_allocator import *
from .doctor_service import *
from .patient_service import *
from .appointment_type_service import *
from .availability_service import *
from .queue_hub import *
from .booking_service import *
