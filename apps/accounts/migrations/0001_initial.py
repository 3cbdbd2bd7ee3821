import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('academics', '0001_initial'),
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(error_messages={'unique': 'A user with that email already exists.'}, max_length=254, unique=True, verbose_name='email address')),
                ('mobile', models.CharField(blank=True, max_length=15)),
                ('enrollment_number', models.CharField(blank=True, max_length=30)),
                ('role', models.CharField(choices=[('student', 'Student'), ('teacher', 'Teacher'), ('hod', 'HOD'), ('admin', 'Admin'), ('coordinator', 'Coordinator')], db_index=True, default='student', max_length=20)),
                ('status', models.CharField(choices=[('pending_first_login', 'Pending First Login'), ('active', 'Active'), ('disabled', 'Disabled')], db_index=True, default='active', max_length=20)),
                ('permissions', models.JSONField(blank=True, default=list, help_text='Explicit section keys. Empty means the role defaults apply.')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('branch', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='students', to='academics.branch')),
                ('semester', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='students', to='academics.semester')),
                ('assigned_subjects', models.ManyToManyField(blank=True, related_name='teachers', to='academics.subject')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'ordering': ['first_name', 'last_name'],
                'indexes': [
                    models.Index(fields=['role', 'status'], name='user_role_status_idx'),
                    models.Index(fields=['branch', 'semester'], name='user_branch_sem_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='CoordinatorAssignment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('base_role', models.CharField(choices=[('teacher', 'Teacher'), ('hod', 'HOD')], default='teacher', help_text='Role restored when the assignment expires', max_length=20)),
                ('valid_till', models.DateTimeField(blank=True, help_text='Leave empty for an assignment that never expires', null=True)),
                ('grace_days', models.PositiveSmallIntegerField(default=0, help_text='Extra days tolerated after valid_till before revocation')),
                ('status', models.CharField(choices=[('active', 'Active'), ('grace', 'Grace'), ('expired', 'Expired')], db_index=True, default='active', max_length=10)),
                ('revoked_at', models.DateTimeField(blank=True, null=True)),
                ('assigned_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='coordinator_grants', to=settings.AUTH_USER_MODEL)),
                ('branch', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='coordinator_assignments', to='academics.branch')),
                ('semesters', models.ManyToManyField(blank=True, related_name='coordinator_assignments', to='academics.semester')),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='coordinator', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'coordinator assignment',
                'verbose_name_plural': 'coordinator assignments',
                'ordering': ['valid_till'],
            },
        ),
    ]
