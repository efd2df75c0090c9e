from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=False, default='New')
    last_name = db.Column(db.String(100), nullable=False, default='User')
    college = db.Column(db.String(150), nullable=False, default='Your College')
    degree = db.Column(db.String(150), nullable=False, default='Your Major')
    graduation_year = db.Column(db.Integer, nullable=False)
    last_login_date = db.Column(db.Date)
    daily_streak = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, server_default=db.func.now())

class Transaction(db.Model):
    __tablename__ = 'transactions'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)
    merchant = db.Column(db.String(255), nullable=False)
    # positive = expense, negative = income
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    category = db.Column(db.String(50), nullable=False)
    is_recurring = db.Column(db.Boolean, nullable=False, default=False)
    recurrence_period = db.Column(db.String(10))
    next_due_date = db.Column(db.Date)
    is_auto_generated = db.Column(db.Boolean, nullable=False, default=False)

class Budget(db.Model):
    __tablename__ = 'budgets'
    __table_args__ = (db.UniqueConstraint('user_id', 'category', name='uq_budget_user_category'),)
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    category = db.Column(db.String(50), nullable=False)
    target = db.Column(db.Numeric(10, 2), nullable=False)

class Goal(db.Model):
    __tablename__ = 'goals'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(150), nullable=False)
    target_amount = db.Column(db.Numeric(10, 2), nullable=False)
    # share of total savings, in percent
    allocation = db.Column(db.Numeric(5, 2), nullable=False, default=0)

class UserAchievement(db.Model):
    __tablename__ = 'user_achievements'
    __table_args__ = (db.UniqueConstraint('user_id', 'achievement_id', name='uq_user_achievement'),)
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    achievement_id = db.Column(db.String(64), nullable=False)
    achieved_at = db.Column(db.DateTime, server_default=db.func.now())

class ContactMessage(db.Model):
    __tablename__ = 'contact_messages'
    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    message_type = db.Column(db.String(20), nullable=False)
    consent_to_display = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, server_default=db.func.now())

class Testimonial(db.Model):
    __tablename__ = 'testimonials'
    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
