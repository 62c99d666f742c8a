from .db_base_model import *
from .doctor_table import *
from .clinic_table import *
from .patient_table import *
from .availability_rule_table import *
from .appointment_type_table import *
from .booking_table import *
from .member_table import *
