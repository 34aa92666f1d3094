from .drop import DropListItem, DropPage, DropRead, DropStats, DropView
from .reservation import ReservationCreate, ReservationRead, ReservationView, ReserveResult
from .purchase import PurchaseCreate, PurchaseRead, PurchaseResultRead, PurchasePage
