import uuid
from django.db import migrations, models
import django.db.models.deletion
from django.conf import settings


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('employees', '0001_initial'),
        ('projects', '0001_initial'),
        ('assignments', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='AttendanceRecord',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('date', models.DateField(db_index=True)),
                ('check_in', models.DateTimeField(blank=True, null=True)),
                ('check_out', models.DateTimeField(blank=True, null=True)),
                ('status', models.CharField(choices=[('present', 'Present'), ('absent', 'Absent')], default='absent', max_length=20)),
                ('total_hours', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ('check_in_latitude', models.DecimalField(blank=True, decimal_places=8, max_digits=10, null=True)),
                ('check_in_longitude', models.DecimalField(blank=True, decimal_places=8, max_digits=11, null=True)),
                ('check_in_accuracy', models.DecimalField(blank=True, decimal_places=2, max_digits=7, null=True)),
                ('check_out_latitude', models.DecimalField(blank=True, decimal_places=8, max_digits=10, null=True)),
                ('check_out_longitude', models.DecimalField(blank=True, decimal_places=8, max_digits=11, null=True)),
                ('inside_geofence_at_checkin', models.BooleanField(default=False)),
                ('check_in_distance_meters', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='attendancerecord_created', to=settings.AUTH_USER_MODEL)),
                ('employee', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attendance_records', to='employees.employee')),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attendance_attendancerecord_set', to='core.organization')),
                ('project', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attendance_records', to='projects.project')),
            ],
            options={
                'ordering': ['-date', 'employee'],
            },
        ),
        migrations.CreateModel(
            name='LocationLog',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('latitude', models.DecimalField(decimal_places=8, max_digits=10)),
                ('longitude', models.DecimalField(decimal_places=8, max_digits=11)),
                ('accuracy', models.DecimalField(blank=True, decimal_places=2, max_digits=7, null=True)),
                ('inside_geofence', models.BooleanField(default=False)),
                ('log_type', models.CharField(choices=[('GEOFENCE_VALIDATION', 'Geofence Validation'), ('TASK_START', 'Task Start'), ('TASK_PROGRESS', 'Task Progress'), ('TASK_COMPLETE', 'Task Complete'), ('CHECK_IN', 'Check In'), ('CHECK_OUT', 'Check Out')], db_index=True, max_length=30)),
                ('logged_at', models.DateTimeField(db_index=True)),
                ('assignment', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='location_logs', to='assignments.taskassignment')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='locationlog_created', to=settings.AUTH_USER_MODEL)),
                ('employee', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='location_logs', to='employees.employee')),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attendance_locationlog_set', to='core.organization')),
                ('project', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='location_logs', to='projects.project')),
            ],
            options={
                'ordering': ['-logged_at'],
            },
        ),
        migrations.AddConstraint(
            model_name='attendancerecord',
            constraint=models.UniqueConstraint(fields=('employee', 'project', 'date'), name='unique_attendance_per_employee_project_day'),
        ),
        migrations.AddIndex(
            model_name='locationlog',
            index=models.Index(fields=['employee', 'logged_at'], name='locationlog_employee_ts_idx'),
        ),
    ]
