from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.db.models import Q

from farmops.farms.models import Farm

LIVESTOCK_TYPE_CHOICES = [
    ('cattle', 'Cattle'),
    ('goat', 'Goat'),
    ('sheep', 'Sheep'),
    ('carabao', 'Carabao'),
]


class Animal(models.Model):
    """An animal kept on a farm"""
    GENDER_CHOICES = [
        ('female', 'Female'),
        ('male', 'Male'),
    ]

    farm = models.ForeignKey(Farm, on_delete=models.CASCADE, related_name='animals')
    ear_tag = models.CharField(max_length=50, blank=True, null=True)
    name = models.CharField(max_length=255, blank=True, null=True)
    livestock_type = models.CharField(max_length=20, choices=LIVESTOCK_TYPE_CHOICES, default='cattle')
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, blank=True, null=True)
    breed = models.CharField(max_length=100, blank=True, null=True)
    birth_date = models.DateField(blank=True, null=True)
    life_stage = models.CharField(max_length=50, blank=True, null=True)
    milking_stage = models.CharField(max_length=50, blank=True, null=True)
    is_milking = models.BooleanField(default=False)
    is_pregnant = models.BooleanField(default=False)
    is_quarantined = models.BooleanField(default=False)
    calving_interval_days = models.PositiveIntegerField(blank=True, null=True, help_text="Days between the last two calvings")
    expected_heat_date = models.DateField(blank=True, null=True)
    current_weight_kg = models.DecimalField(max_digits=8, decimal_places=2, blank=True, null=True)
    ovr_score = models.PositiveSmallIntegerField(blank=True, null=True)
    previous_ovr_score = models.PositiveSmallIntegerField(blank=True, null=True)
    ovr_scored_on = models.DateField(blank=True, null=True)
    is_deleted = models.BooleanField(default=False)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.ear_tag or self.name or f"Animal-{self.id}"

    class Meta:
        db_table = 'animals'
        ordering = ['ear_tag', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['farm', 'ear_tag'],
                condition=Q(is_deleted=False),
                name='unique_live_ear_tag_per_farm',
            ),
        ]
        indexes = [
            models.Index(fields=['farm', 'is_deleted'], name='animals_farm_id_6e2f0a_idx'),
        ]


class WeightRecord(models.Model):
    METHOD_CHOICES = [
        ('actual', 'Actual'),
        ('estimated', 'Estimated'),
    ]

    animal = models.ForeignKey(Animal, on_delete=models.CASCADE, related_name='weight_records')
    weight_kg = models.DecimalField(max_digits=8, decimal_places=2, validators=[MinValueValidator(0)])
    measurement_date = models.DateField()
    measurement_method = models.CharField(max_length=20, choices=METHOD_CHOICES, default='actual')
    notes = models.TextField(blank=True, null=True)
    recorded_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.animal} {self.weight_kg} kg on {self.measurement_date}"

    class Meta:
        db_table = 'weight_records'
        ordering = ['-measurement_date', '-created_at']


class MilkingRecord(models.Model):
    SESSION_CHOICES = [
        ('AM', 'Morning'),
        ('PM', 'Evening'),
    ]

    animal = models.ForeignKey(Animal, on_delete=models.CASCADE, related_name='milking_records')
    record_date = models.DateField()
    liters = models.DecimalField(max_digits=8, decimal_places=2, validators=[MinValueValidator(0)])
    session = models.CharField(max_length=2, choices=SESSION_CHOICES, default='AM')
    is_sold = models.BooleanField(default=False)
    sale_amount = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'milking_records'
        ordering = ['-record_date', '-created_at']


class FeedingRecord(models.Model):
    animal = models.ForeignKey(Animal, on_delete=models.CASCADE, related_name='feeding_records')
    record_datetime = models.DateTimeField()
    feed_type = models.CharField(max_length=255)
    kilograms = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    notes = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'feeding_records'
        ordering = ['-record_datetime']


class HealthRecord(models.Model):
    animal = models.ForeignKey(Animal, on_delete=models.CASCADE, related_name='health_records')
    visit_date = models.DateField()
    diagnosis = models.CharField(max_length=255, blank=True, null=True)
    treatment = models.TextField(blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    is_resolved = models.BooleanField(default=False)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'health_records'
        ordering = ['-visit_date', '-created_at']


class InjectionRecord(models.Model):
    animal = models.ForeignKey(Animal, on_delete=models.CASCADE, related_name='injection_records')
    record_datetime = models.DateTimeField()
    medicine_name = models.CharField(max_length=255, blank=True, null=True)
    dosage = models.CharField(max_length=100, blank=True, null=True)
    instructions = models.TextField(blank=True, null=True)
    withdrawal_until = models.DateField(blank=True, null=True, help_text="Milk and meat are withheld until this date")
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'injection_records'
        ordering = ['-record_datetime']


class BodyConditionRecord(models.Model):
    animal = models.ForeignKey(Animal, on_delete=models.CASCADE, related_name='body_condition_records')
    score = models.DecimalField(max_digits=2, decimal_places=1, validators=[MinValueValidator(1), MaxValueValidator(5)])
    assessment_date = models.DateField()
    notes = models.TextField(blank=True, null=True)
    assessor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'body_condition_scores'
        ordering = ['-assessment_date', '-created_at']


class VaccinationSchedule(models.Model):
    """A scheduled vaccine dose; completed_date is set once given"""
    animal = models.ForeignKey(Animal, on_delete=models.CASCADE, related_name='vaccinations')
    vaccine_name = models.CharField(max_length=255)
    due_date = models.DateField()
    completed_date = models.DateField(blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'vaccination_schedules'
        ordering = ['due_date']
