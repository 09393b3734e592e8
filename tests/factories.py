"""
MediStock — Test Factories

Factory Boy factories for generating test data. Used across all test
modules.

@file tests/factories.py
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import factory
from django.utils import timezone

from core.models import AuditLog
from dispensing.models import Requisition, RequisitionItem
from medicines.models import Medicine
from procurement.models import PurchaseOrder
from stock.models import Batch, StockMovement
from users.models import Department, Role, User, UserRole


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = User
        skip_postgeneration_save = True

    email = factory.Sequence(lambda n: f'staff-{n}@medistock.test')
    staff_number = factory.Sequence(lambda n: f'STF-{n:05d}')
    first_name = factory.Faker('first_name')
    last_name = factory.Faker('last_name')
    department = Department.PHARMACY
    status = User.StatusChoices.ACTIVE
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        password = extracted or 'TestPass2026!'
        self.set_password(password)
        if create:
            self.save(update_fields=['password'])


class SuperuserFactory(UserFactory):
    is_staff = True
    is_superuser = True


class RoleFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Role
        django_get_or_create = ('name',)

    name = factory.Sequence(lambda n: f'ROLE_{n}')
    description = factory.Faker('sentence')
    is_system = False


class UserRoleFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = UserRole

    user = factory.SubFactory(UserFactory)
    role = factory.SubFactory(RoleFactory)
    is_active = True


# ---------------------------------------------------------------------------
# Medicines
# ---------------------------------------------------------------------------

class MedicineFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Medicine

    name = factory.Sequence(lambda n: f'Medicine-{n}')
    generic_name = factory.Sequence(lambda n: f'Generic-{n}')
    dosage_form = Medicine.DosageFormChoices.TABLET
    strength = '500mg'
    manufacturer = factory.Faker('company')
    category = Medicine.CategoryChoices.ANALGESIC
    selling_price = factory.LazyFunction(lambda: Decimal('2.50'))
    reorder_level = 10


# ---------------------------------------------------------------------------
# Procurement
# ---------------------------------------------------------------------------

class PurchaseOrderFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PurchaseOrder

    po_number = factory.Sequence(lambda n: f'PO-{n:05d}')
    supplier_name = factory.Faker('company')
    supplier_email = factory.Faker('company_email')
    status = PurchaseOrder.StatusChoices.PENDING


# ---------------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------------

class BatchFactory(factory.django.DjangoModelFactory):
    """
    A batch written straight to the table, without its IN entry. Use
    ReceivingService.receive when a test needs a consistent ledger.
    """

    class Meta:
        model = Batch

    medicine = factory.SubFactory(MedicineFactory)
    batch_number = factory.Sequence(lambda n: f'LOT-{n:06d}')
    expiry_date = factory.LazyFunction(lambda: (timezone.now() + timedelta(days=365)).date())
    quantity_received = 100
    quantity_remaining = factory.LazyAttribute(lambda o: o.quantity_received)
    unit_cost = factory.LazyFunction(lambda: Decimal('1.00'))
    selling_price = factory.LazyFunction(lambda: Decimal('1.30'))
    location = 'MAIN STORE'


class StockMovementFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = StockMovement

    batch = factory.SubFactory(BatchFactory)
    medicine = factory.LazyAttribute(lambda o: o.batch.medicine)
    movement_type = StockMovement.MovementType.IN
    direction = StockMovement.Direction.INCREASE
    quantity = 10
    reason = 'Received into MAIN STORE'
    performed_by = factory.SubFactory(UserFactory)


# ---------------------------------------------------------------------------
# Dispensing
# ---------------------------------------------------------------------------

class RequisitionFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Requisition

    requisition_number = factory.Sequence(lambda n: f'REQ-209901-{n:05d}')
    department = Department.SURGERY
    location = 'Ward B'
    requested_by = factory.SubFactory(UserFactory)


class RequisitionItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = RequisitionItem

    requisition = factory.SubFactory(RequisitionFactory)
    medicine = factory.SubFactory(MedicineFactory)
    requested_quantity = 20


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------

class AuditLogFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = AuditLog

    actor = factory.SubFactory(UserFactory)
    action = AuditLog.ActionChoices.CREATE
    model_name = 'Medicine'
    object_id = factory.LazyFunction(lambda: str(uuid.uuid4()))
