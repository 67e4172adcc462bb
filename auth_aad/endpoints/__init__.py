"""Exports all endpoints"""

from .login import AADLoginView as AADLoginView
from .callback import AADCallbackView as AADCallbackView
from .logout import AADLogoutView as AADLogoutView
