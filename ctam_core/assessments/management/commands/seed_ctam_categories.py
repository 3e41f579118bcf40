# ctam_core/assessments/management/commands/seed_ctam_categories.py

from django.core.management.base import BaseCommand

from ctam_core.assessments.models import Category

# (code, name_th, name_en, description)
CTAM_CATEGORIES = [
    ("BACKUP", "การสำรองข้อมูล", "Backup", "ระบบสำรองข้อมูลและการกู้คืน"),
    ("ANTIVIRUS", "โปรแกรมป้องกันไวรัส", "Antivirus", "ซอฟต์แวร์ป้องกันมัลแวร์และไวรัส"),
    ("ACCESS_CONTROL", "การควบคุมการเข้าถึง", "Access Control", "ระบบจัดการสิทธิ์การเข้าถึง"),
    ("PAM", "การจัดการบัญชีพิเศษ", "Privileged Access Management", "การจัดการ Admin Account"),
    ("BCP_DRP", "แผนความต่อเนื่องทางธุรกิจ", "BCP/DRP", "Business Continuity & Disaster Recovery Plan"),
    ("OS_PATCHING", "การอัปเดต OS", "OS Patching", "การอัปเดตระบบปฏิบัติการ"),
    ("MFA", "การยืนยันตัวตนหลายปัจจัย", "Multi-Factor Authentication", "MFA สำหรับระบบสำคัญ"),
    ("WAF", "ไฟร์วอลล์เว็บแอปพลิเคชัน", "Web Application Firewall", "WAF ป้องกันเว็บแอปพลิเคชัน"),
    ("LOG_MGMT", "การจัดการ Log", "Log Management", "ระบบเก็บและจัดการ Log"),
    ("SIEM", "ระบบ SIEM", "Security Information & Event Management", "ระบบวิเคราะห์ความปลอดภัย"),
    ("VA_SCAN", "การสแกนช่องโหว่", "Vulnerability Assessment", "การตรวจสอบช่องโหว่ระบบ"),
    ("UNUSED_SYSTEM", "ปิดระบบที่ไม่ใช้", "Disable Unused Systems", "การปิดบริการที่ไม่จำเป็น"),
    ("SW_PATCHING", "การอัปเดตซอฟต์แวร์", "Software Patching", "การอัปเดตแอปพลิเคชัน"),
    ("NETWORK_SEG", "การแบ่งเครือข่าย", "Network Segmentation", "VLAN/Subnet แยกโซน"),
    ("SW_LICENSE", "ลิขสิทธิ์ซอฟต์แวร์", "Software License", "การใช้ซอฟต์แวร์ถูกลิขสิทธิ์"),
    ("PENTEST", "การทดสอบเจาะระบบ", "Penetration Testing", "การทดสอบความปลอดภัยเชิงรุก"),
    ("POLICY", "นโยบายและการฝึกอบรม", "Policy & Training", "นโยบาย IT Security และการอบรม"),
]


class Command(BaseCommand):
    help = "Ensure the 17 CTAM+ assessment categories exist (idempotent)."

    def handle(self, *args, **options):
        created = 0
        for order, (code, name_th, name_en, description) in enumerate(CTAM_CATEGORIES, start=1):
            _, was_created = Category.objects.get_or_create(
                code=code,
                defaults={
                    "name_th": name_th,
                    "name_en": name_en,
                    "description": description,
                    "order_number": order,
                },
            )
            created += 1 if was_created else 0

        self.stdout.write(self.style.SUCCESS(f"Categories ensured. Newly created: {created}"))
