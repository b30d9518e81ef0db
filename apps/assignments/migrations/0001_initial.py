import uuid
import apps.assignments.models
import django.core.validators
from django.db import migrations, models
import django.db.models.deletion
from django.conf import settings


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('employees', '0001_initial'),
        ('projects', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='TaskAssignment',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('date', models.DateField(db_index=True)),
                ('status', models.CharField(choices=[('queued', 'Queued'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('blocked', 'Blocked')], db_index=True, default='queued', max_length=20)),
                ('sequence', models.PositiveIntegerField(blank=True, null=True)),
                ('priority', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('critical', 'Critical')], default='medium', max_length=10)),
                ('dependencies', models.JSONField(blank=True, default=list)),
                ('target_description', models.CharField(blank=True, max_length=500)),
                ('target_quantity', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('target_unit', models.CharField(blank=True, max_length=30)),
                ('target_completion_percent', models.DecimalField(decimal_places=2, default=100, max_digits=5)),
                ('estimated_minutes', models.DecimalField(decimal_places=2, default=0, max_digits=8)),
                ('elapsed_minutes', models.DecimalField(decimal_places=2, default=0, max_digits=8)),
                ('remaining_minutes', models.DecimalField(decimal_places=2, default=0, max_digits=8)),
                ('progress_percent', models.DecimalField(decimal_places=2, default=0, max_digits=5, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)])),
                ('last_validated_at', models.DateTimeField(blank=True, null=True)),
                ('last_latitude', models.DecimalField(blank=True, decimal_places=8, max_digits=10, null=True)),
                ('last_longitude', models.DecimalField(blank=True, decimal_places=8, max_digits=11, null=True)),
                ('last_accuracy', models.DecimalField(blank=True, decimal_places=2, max_digits=7, null=True)),
                ('last_distance_meters', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('last_inside_geofence', models.BooleanField(blank=True, null=True)),
                ('start_time', models.DateTimeField(blank=True, null=True)),
                ('end_time', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('assigned_at', models.DateTimeField(blank=True, null=True)),
                ('work_area', models.CharField(blank=True, max_length=100)),
                ('floor', models.CharField(blank=True, max_length=50)),
                ('zone', models.CharField(blank=True, max_length=50)),
                ('version', models.PositiveIntegerField(default=1)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='taskassignment_created', to=settings.AUTH_USER_MODEL)),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='assignments_taskassignment_set', to='core.organization')),
                ('project', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='assignments', to='projects.project')),
                ('supervisor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_tasks', to='employees.employee')),
                ('task', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='assignments', to='projects.task')),
                ('worker', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='assignments', to='employees.employee')),
            ],
            options={
                'ordering': ['date', 'worker', 'sequence'],
            },
        ),
        migrations.CreateModel(
            name='TaskProgress',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('percent', models.DecimalField(decimal_places=2, max_digits=5, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)])),
                ('description', models.TextField(max_length=1000)),
                ('notes', models.TextField(blank=True, max_length=500)),
                ('completed_quantity', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('issues_encountered', models.JSONField(blank=True, default=list)),
                ('latitude', models.DecimalField(blank=True, decimal_places=8, max_digits=10, null=True)),
                ('longitude', models.DecimalField(blank=True, decimal_places=8, max_digits=11, null=True)),
                ('accuracy', models.DecimalField(blank=True, decimal_places=2, max_digits=7, null=True)),
                ('submitted_at', models.DateTimeField(db_index=True)),
                ('assignment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='progress_updates', to='assignments.taskassignment')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='taskprogress_created', to=settings.AUTH_USER_MODEL)),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='assignments_taskprogress_set', to='core.organization')),
                ('worker', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='progress_updates', to='employees.employee')),
            ],
            options={
                'verbose_name_plural': 'Task progress',
                'ordering': ['assignment', 'submitted_at'],
            },
        ),
        migrations.CreateModel(
            name='TaskIssue',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('ticket_number', models.CharField(max_length=64, unique=True)),
                ('issue_type', models.CharField(choices=[('material_shortage', 'Material Shortage'), ('tool_malfunction', 'Tool Malfunction'), ('safety_concern', 'Safety Concern'), ('quality_issue', 'Quality Issue'), ('weather_delay', 'Weather Delay'), ('technical_problem', 'Technical Problem'), ('other', 'Other')], max_length=30)),
                ('priority', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('critical', 'Critical')], default='medium', max_length=10)),
                ('description', models.TextField(max_length=1000)),
                ('status', models.CharField(choices=[('reported', 'Reported'), ('acknowledged', 'Acknowledged'), ('resolved', 'Resolved')], db_index=True, default='reported', max_length=20)),
                ('latitude', models.DecimalField(blank=True, decimal_places=8, max_digits=10, null=True)),
                ('longitude', models.DecimalField(blank=True, decimal_places=8, max_digits=11, null=True)),
                ('work_area', models.CharField(blank=True, max_length=100)),
                ('reported_at', models.DateTimeField(db_index=True)),
                ('assignment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='issues', to='assignments.taskassignment')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='taskissue_created', to=settings.AUTH_USER_MODEL)),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='assignments_taskissue_set', to='core.organization')),
                ('worker', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reported_issues', to='employees.employee')),
            ],
            options={
                'ordering': ['-reported_at'],
            },
        ),
        migrations.CreateModel(
            name='TaskPhoto',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('image', models.FileField(upload_to=apps.assignments.models.photo_upload_path)),
                ('file_name', models.CharField(max_length=255)),
                ('content_type', models.CharField(max_length=50)),
                ('size', models.PositiveIntegerField()),
                ('caption', models.CharField(blank=True, max_length=255)),
                ('assignment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='photos', to='assignments.taskassignment')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='taskphoto_created', to=settings.AUTH_USER_MODEL)),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='assignments_taskphoto_set', to='core.organization')),
                ('worker', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='task_photos', to='employees.employee')),
            ],
            options={
                'ordering': ['assignment', 'created_at'],
            },
        ),
        migrations.AddConstraint(
            model_name='taskassignment',
            constraint=models.UniqueConstraint(fields=('worker', 'task', 'date'), name='unique_task_per_worker_day'),
        ),
        migrations.AddConstraint(
            model_name='taskassignment',
            constraint=models.UniqueConstraint(condition=models.Q(('status', 'in_progress')), fields=('worker', 'date'), name='single_active_assignment_per_worker_day'),
        ),
        migrations.AddIndex(
            model_name='taskassignment',
            index=models.Index(fields=['worker', 'date', 'status'], name='assignment_worker_day_idx'),
        ),
        migrations.AddIndex(
            model_name='taskassignment',
            index=models.Index(fields=['worker', 'project', 'date'], name='assignment_siblings_idx'),
        ),
    ]
