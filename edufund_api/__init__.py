"""EduFund Donations API"""
