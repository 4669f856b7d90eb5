from medbook.models.user import User
from medbook.models.event import Event
from medbook.models.booking import Booking
from medbook.models.qr_code import EventQRCode, QRCodeScan

__all__ = ["User", "Event", "Booking", "EventQRCode", "QRCodeScan"]
