from .models_user import User, UserManager
from .models_application import PermitApplication, InvalidTransition
from .models_verification import PaymentVerificationLog
from .models_security import PasswordResetToken, SecurityAuditLog
