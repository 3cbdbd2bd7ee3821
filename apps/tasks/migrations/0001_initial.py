import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('academics', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Task',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField()),
                ('category', models.CharField(choices=[('Task', 'Task'), ('Assignment', 'Assignment'), ('Custom', 'Custom')], default='Task', max_length=20)),
                ('created_by_role', models.CharField(max_length=20)),
                ('due_date', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('active', 'Active'), ('archived', 'Archived'), ('deleted', 'Deleted')], db_index=True, default='active', max_length=10)),
                ('reminder_before3', models.DateTimeField(blank=True, help_text='When the 3-day reminder batch was sent', null=True)),
                ('reminder_before1', models.DateTimeField(blank=True, help_text='When the 24-hour reminder batch was sent', null=True)),
                ('reminder_overdue', models.DateTimeField(blank=True, help_text='When the overdue notification batch was sent', null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('branch', models.ForeignKey(help_text='Auto-populated from subject', on_delete=django.db.models.deletion.PROTECT, related_name='tasks', to='academics.branch')),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='created_tasks', to=settings.AUTH_USER_MODEL)),
                ('semester', models.ForeignKey(help_text='Auto-populated from subject', on_delete=django.db.models.deletion.PROTECT, related_name='tasks', to='academics.semester')),
                ('subject', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='tasks', to='academics.subject')),
            ],
            options={
                'verbose_name': 'task',
                'verbose_name_plural': 'tasks',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['subject', 'branch', 'semester'], name='task_subject_scope_idx'),
                    models.Index(fields=['status', 'due_date'], name='task_status_due_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TaskRecipient',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('in-progress', 'In Progress'), ('submitted', 'Submitted'), ('completed', 'Completed')], default='pending', max_length=15)),
                ('submitted_at', models.DateTimeField(blank=True, null=True)),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='task_copies', to=settings.AUTH_USER_MODEL)),
                ('task', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='recipients', to='tasks.task')),
            ],
            options={
                'verbose_name': 'task recipient',
                'verbose_name_plural': 'task recipients',
                'constraints': [models.UniqueConstraint(fields=('task', 'student'), name='unique_task_recipient')],
            },
        ),
    ]
