from models.customers import Customer
from models.sales_documents import SalesDocument
from models.sales_document_lines import SalesDocumentLine
from models.ar_invoices import ARInvoice
from models.ar_payments import ARPayment
from models.document_series import DocumentSeries
from models.fiscal_periods import FiscalPeriod
from models.user_groups import UserGroup
from models.access_rights import AccessRight
from models.users import User
from models.audit_log import AuditLog

__all__ = ['ARInvoice', 'ARPayment', 'AccessRight', 'AuditLog', 'Customer', 'DocumentSeries', 'FiscalPeriod', 'SalesDocument', 'SalesDocumentLine', 'User', 'UserGroup',]
