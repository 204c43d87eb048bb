"""
Management command to seed the permission catalog.

Creates all Module and Permission records that define available access
controls across the system. This command is idempotent and safe to re-run.
"""
from django.core.management.base import BaseCommand
from django.db import transaction
from apps.rbac.models import Module, Permission


class Command(BaseCommand):
    help = 'Seed the module/permission catalog (idempotent)'

    # module_key, module_name, module_group, sort_order, [(permission_key, permission_name), ...]
    CATALOG = [
        ('products', 'Products', 'Inventory', 10, [
            ('view_products', 'View Products'),
            ('create_product', 'Create Products'),
            ('edit_product', 'Edit Products'),
            ('delete_product', 'Delete Products'),
            ('view_stock', 'View Stock'),
        ]),
        ('suppliers', 'Suppliers', 'Inventory', 20, [
            ('view_suppliers', 'View Suppliers'),
            ('create_supplier', 'Create Suppliers'),
            ('edit_supplier', 'Edit Suppliers'),
            ('delete_supplier', 'Delete Suppliers'),
            ('view_supplier_transactions', 'View Supplier Transactions'),
        ]),
        ('orders', 'Orders', 'Sales', 30, [
            ('view_all_orders', 'View All Orders'),
            ('create_order', 'Create Orders'),
            ('edit_order', 'Edit Orders'),
            ('manage_order_status', 'Manage Order Status'),
            ('view_statistics', 'View Order Statistics'),
        ]),
        ('bills', 'Bills', 'Finance', 40, [
            ('view_bills', 'View Bills'),
            ('create_bill', 'Create Bills'),
            ('edit_bill', 'Edit Bills'),
            ('record_payment', 'Record Bill Payments'),
            ('view_reports', 'View Bill Reports'),
        ]),
        ('payments', 'Payments', 'Finance', 50, [
            ('view_payments', 'View Payments'),
            ('create_payments', 'Create Payments'),
            ('edit_payments', 'Edit Payments'),
            ('delete_payments', 'Delete Payments'),
        ]),
        ('policies', 'Policies', 'Finance', 60, [
            ('view_policies', 'View Policies'),
            ('create_policies', 'Create Policies'),
            ('edit_policies', 'Edit Policies'),
            ('delete_policies', 'Delete Policies'),
        ]),
        ('clients', 'Clients', 'Sales', 70, [
            ('view_clients', 'View Clients'),
            ('create_client', 'Create Clients'),
            ('edit_client', 'Edit Clients'),
            ('delete_client', 'Delete Clients'),
        ]),
        ('emails', 'Emails', 'Communication', 80, [
            ('view_emails', 'View Emails'),
            ('send_email', 'Send Emails'),
            ('resend_email', 'Resend Emails'),
            ('verify_email', 'Verify Email Addresses'),
        ]),
        ('employees', 'Employees', 'Human Resources', 90, [
            ('view_employees', 'View Employees'),
            ('create_employee', 'Create Employees'),
            ('edit_employee', 'Edit Employees'),
            ('delete_employee', 'Delete Employees'),
        ]),
        ('salaries', 'Salaries', 'Human Resources', 100, [
            ('view_salaries', 'View Salaries'),
            ('create_salary', 'Create Salaries'),
            ('edit_salary', 'Edit Salaries'),
            ('delete_salary', 'Delete Salaries'),
        ]),
        ('roles', 'Roles', 'Administration', 110, [
            ('manage_roles', 'Manage Roles'),
            ('assign_permissions', 'Assign Permissions'),
        ]),
        ('users', 'Users', 'Administration', 120, [
            ('view_users', 'View Users'),
            ('assign_roles', 'Assign Roles'),
        ]),
    ]

    @transaction.atomic
    def handle(self, *args, **options):
        """Create or update all catalog entries."""

        created_count = 0
        updated_count = 0
        total = 0

        self.stdout.write('Seeding permission catalog...\n')

        for module_key, module_name, module_group, sort_order, permissions in self.CATALOG:
            module, module_created = Module.objects.get_or_create(
                module_key=module_key,
                defaults={
                    'module_name': module_name,
                    'module_group': module_group,
                    'sort_order': sort_order,
                }
            )
            if not module_created and (
                    module.module_name, module.module_group, module.sort_order
            ) != (module_name, module_group, sort_order):
                module.module_name = module_name
                module.module_group = module_group
                module.sort_order = sort_order
                module.save()

            for permission_key, permission_name in permissions:
                total += 1
                permission, created = Permission.objects.get_or_create_permission(
                    module=module,
                    permission_key=permission_key,
                    permission_name=permission_name,
                )

                if created:
                    created_count += 1
                    self.stdout.write(self.style.SUCCESS(f'✓ Created: {module_key}.{permission_key}'))
                elif permission.permission_name != permission_name:
                    permission.permission_name = permission_name
                    permission.save()
                    updated_count += 1
                    self.stdout.write(self.style.WARNING(f'↻ Updated: {module_key}.{permission_key}'))

        self.stdout.write(
            self.style.SUCCESS(
                f'\n✓ Seeding complete: {created_count} created, {updated_count} updated, '
                f'{total - created_count - updated_count} unchanged'
            )
        )
