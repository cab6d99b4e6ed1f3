"""initial sales and receivables schema

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 09:12:44.518203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

DOCUMENT_TYPES = ('QUOTATION', 'SALES_ORDER', 'DELIVERY_ORDER', 'INVOICE', 'CASH_SALE', 'CREDIT_NOTE', 'DEBIT_NOTE')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('updated_by', sa.String(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        'user_groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('code', sa.String(30), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint('tenant_id', 'code', name='_tenant_user_group_code_uc'),
    )
    op.create_index('ix_user_groups_tenant_id', 'user_groups', ['tenant_id'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('user_groups.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('is_admin', sa.Boolean(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_users_tenant_id', 'users', ['tenant_id'])
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'access_rights',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('user_groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('module_code', sa.String(30), nullable=False),
        sa.Column('function_code', sa.String(30), nullable=False, server_default='ALL'),
        sa.Column('can_view', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('can_add', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('can_edit', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('can_delete', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('can_print', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('can_export', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('custom_permissions', sa.JSON(), nullable=True),
        sa.UniqueConstraint('group_id', 'module_code', 'function_code', name='_group_module_function_uc'),
    )
    op.create_index('ix_access_rights_group_id', 'access_rights', ['group_id'])

    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('code', sa.String(30), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('contact_person', sa.String(100), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('email', sa.String(200), nullable=True),
        sa.Column('address1', sa.String(200), nullable=True),
        sa.Column('address2', sa.String(200), nullable=True),
        sa.Column('address3', sa.String(200), nullable=True),
        sa.Column('address4', sa.String(200), nullable=True),
        sa.Column('credit_term_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('credit_limit', sa.Numeric(18, 2), nullable=False, server_default='0'),
        sa.Column('currency_code', sa.String(3), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_by', sa.String(), nullable=True),
        sa.UniqueConstraint('tenant_id', 'code', name='_tenant_customer_code_uc'),
    )
    op.create_index('ix_customers_tenant_id', 'customers', ['tenant_id'])
    op.create_index('ix_customers_code', 'customers', ['code'])

    op.create_table(
        'ar_invoices',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('invoice_no', sa.String(50), nullable=False),
        sa.Column('invoice_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('customer_code', sa.String(30), nullable=False),
        sa.Column('customer_name', sa.String(200), nullable=False),
        sa.Column('reference', sa.String(100), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('sub_total', sa.Numeric(18, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('net_total', sa.Numeric(18, 2), nullable=False),
        sa.Column('paid_amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('outstanding_amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('currency_code', sa.String(3), nullable=False),
        sa.Column('exchange_rate', sa.Numeric(18, 6), nullable=False),
        sa.Column('status', sa.Enum('OPEN', 'PARTIAL', 'PAID', 'VOID', name='arinvoicestatus'), nullable=False),
        sa.Column('is_void', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('source_type', sa.String(30), nullable=True),
        sa.Column('source_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('tenant_id', 'invoice_no', name='_tenant_ar_invoice_no_uc'),
        sa.UniqueConstraint('tenant_id', 'source_type', 'source_id', name='_tenant_ar_source_uc'),
    )
    op.create_index('ix_ar_invoices_tenant_id', 'ar_invoices', ['tenant_id'])

    op.create_table(
        'ar_payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('payment_no', sa.String(50), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('ar_invoice_id', sa.Integer(), sa.ForeignKey('ar_invoices.id'), nullable=False),
        sa.Column('amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('payment_method', sa.String(30), nullable=True),
        sa.Column('reference', sa.String(100), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('tenant_id', 'payment_no', name='_tenant_ar_payment_no_uc'),
    )
    op.create_index('ix_ar_payments_tenant_id', 'ar_payments', ['tenant_id'])
    op.create_index('ix_ar_payments_ar_invoice_id', 'ar_payments', ['ar_invoice_id'])

    op.create_table(
        'sales_documents',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('document_type', sa.Enum(*DOCUMENT_TYPES, name='documenttype'), nullable=False),
        sa.Column('document_no', sa.String(50), nullable=False),
        sa.Column('document_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('customer_code', sa.String(30), nullable=False),
        sa.Column('customer_name', sa.String(200), nullable=False),
        sa.Column('bill_to_address', sa.Text(), nullable=True),
        sa.Column('ship_to_address', sa.Text(), nullable=True),
        sa.Column('reference', sa.String(100), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.Enum('OPEN', 'POSTED', 'TRANSFERRED', 'VOID', name='documentstatus'), nullable=False),
        sa.Column('transfer_status', sa.Enum('NONE', 'PARTIAL', 'TRANSFERRED', name='transferstatus'), nullable=False),
        sa.Column('is_posted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_void', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('source_type', sa.String(30), nullable=True),
        sa.Column('source_id', sa.Integer(), nullable=True),
        sa.Column('ar_invoice_id', sa.Integer(), sa.ForeignKey('ar_invoices.id'), nullable=True),
        sa.Column('currency_code', sa.String(3), nullable=False),
        sa.Column('exchange_rate', sa.Numeric(18, 6), nullable=False),
        sa.Column('is_tax_inclusive', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('sub_total', sa.Numeric(18, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('rounding_amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('net_total', sa.Numeric(18, 2), nullable=False),
        sa.Column('net_total_local', sa.Numeric(18, 2), nullable=False),
        sa.Column('paid_amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('change_amount', sa.Numeric(18, 2), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('tenant_id', 'document_type', 'document_no', name='_tenant_sales_doc_no_uc'),
    )
    op.create_index('ix_sales_documents_tenant_id', 'sales_documents', ['tenant_id'])
    op.create_index('ix_sales_documents_document_type', 'sales_documents', ['document_type'])
    op.create_index('ix_sales_documents_source_id', 'sales_documents', ['source_id'])

    op.create_table(
        'sales_document_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('document_id', sa.Integer(), sa.ForeignKey('sales_documents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('line_no', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('product_code', sa.String(50), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('quantity', sa.Numeric(18, 4), nullable=False),
        sa.Column('uom_code', sa.String(20), nullable=True),
        sa.Column('uom_rate', sa.Numeric(18, 4), nullable=False),
        sa.Column('base_quantity', sa.Numeric(18, 4), nullable=False),
        sa.Column('unit_price', sa.Numeric(18, 4), nullable=False),
        sa.Column('discount_text', sa.String(50), nullable=True),
        sa.Column('discount_amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('sub_total', sa.Numeric(18, 2), nullable=False),
        sa.Column('tax_code', sa.String(20), nullable=True),
        sa.Column('tax_rate', sa.Numeric(9, 4), nullable=False),
        sa.Column('tax_amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('unit_cost', sa.Numeric(18, 4), nullable=False),
        sa.Column('outstanding_qty', sa.Numeric(18, 4), nullable=False),
        sa.Column('transferred_qty', sa.Numeric(18, 4), nullable=False),
        sa.Column('source_line_id', sa.Integer(), nullable=True),
    )
    op.create_index('ix_sales_document_lines_tenant_id', 'sales_document_lines', ['tenant_id'])
    op.create_index('ix_sales_document_lines_document_id', 'sales_document_lines', ['document_id'])

    op.create_table(
        'document_series',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('document_type', sa.String(30), nullable=False),
        sa.Column('code', sa.String(20), nullable=False),
        sa.Column('prefix', sa.String(30), nullable=True),
        sa.Column('suffix', sa.String(30), nullable=True),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('number_length', sa.Integer(), nullable=False, server_default='6'),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint('tenant_id', 'document_type', 'code', name='_tenant_doc_series_code_uc'),
    )
    op.create_index('ix_document_series_tenant_id', 'document_series', ['tenant_id'])
    op.create_index('ix_document_series_document_type', 'document_series', ['document_type'])

    op.create_table(
        'fiscal_periods',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(50), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_year_closed', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index('ix_fiscal_periods_tenant_id', 'fiscal_periods', ['tenant_id'])

    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('table_name', sa.String(50), nullable=False),
        sa.Column('record_id', sa.Integer(), nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('changed_by', sa.String(), nullable=False),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
    )
    op.create_index('ix_audit_log_record', 'audit_log', ['tenant_id', 'table_name', 'record_id'])
    op.create_index('ix_audit_log_changed_at', 'audit_log', ['changed_at'])


def downgrade() -> None:
    op.drop_table('audit_log')
    op.drop_table('fiscal_periods')
    op.drop_table('document_series')
    op.drop_table('sales_document_lines')
    op.drop_table('sales_documents')
    op.drop_table('ar_payments')
    op.drop_table('ar_invoices')
    op.drop_table('customers')
    op.drop_table('access_rights')
    op.drop_table('users')
    op.drop_table('user_groups')
    for enum_name in ('transferstatus', 'documentstatus', 'documenttype', 'arinvoicestatus'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
