from .base_schema import *
from .doctor_schema import *
from .patient_schema import *
from .schedule_schemas import *
from .appointment_schemas import *
from .queue_schemas import *
